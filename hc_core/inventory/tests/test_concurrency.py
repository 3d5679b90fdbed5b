import threading

import pytest
from django.db import connection

from hc_core.common.errors import InsufficientStock
from hc_core.inventory.services import InventoryLedger

pytestmark = [
    pytest.mark.django_db(transaction=True),
    pytest.mark.skipif(
        connection.vendor == "sqlite",
        reason="sqlite serialises writers with table locks; run against PostgreSQL",
    ),
]


def test_parallel_deductions_never_oversell(make_item):
    item = make_item(quantity=10)
    workers = 8
    barrier = threading.Barrier(workers)
    outcomes = [None] * workers

    def _deduct(i):
        try:
            barrier.wait()
            InventoryLedger.reserve_and_deduct(item_id=item.id, quantity=2)
            outcomes[i] = "ok"
        except InsufficientStock as exc:
            outcomes[i] = exc
        finally:
            connection.close()

    threads = [threading.Thread(target=_deduct, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert outcomes.count("ok") == 5, outcomes
    assert sum(isinstance(o, InsufficientStock) for o in outcomes) == 3, outcomes
    item.refresh_from_db()
    assert item.quantity == 0
