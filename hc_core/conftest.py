# hc_core/conftest.py
from datetime import date, timedelta

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from hc_core.common.principal import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, Principal
from hc_core.inventory.models import InventoryItem
from hc_core.patients.services import PatientService


def _user(username, *, role=None, email="", first_name="", last_name="", **extra):
    User = get_user_model()
    user = User.objects.create_user(
        username=username,
        password="testpass",
        email=email,
        first_name=first_name,
        last_name=last_name,
        is_active=True,
        **extra,
    )
    if role:
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
    return user


def _client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def practitioner(db):
    return _user("dr_rao", role=ROLE_DOCTOR, email="rao@clinic.test", first_name="Anil", last_name="Rao")


@pytest.fixture
def other_practitioner(db):
    return _user("dr_iyer", role=ROLE_DOCTOR, email="iyer@clinic.test", first_name="Meera", last_name="Iyer")


@pytest.fixture
def patient_user(db):
    return _user("raj", role=ROLE_PATIENT, email="raj@example.com", first_name="Raj", last_name="Kumar")


@pytest.fixture
def admin_user(db):
    return _user("admin", role=ROLE_ADMIN, is_staff=True)


@pytest.fixture
def doctor_principal(practitioner):
    return Principal(id=practitioner.id, role=ROLE_DOCTOR)


@pytest.fixture
def make_patient(practitioner):
    def _make(name="Sita Devi", mobile="9000000001", *, practitioner_id=..., **fields):
        return PatientService.create_patient(
            practitioner_id=practitioner.id if practitioner_id is ... else practitioner_id,
            actor_user_id=practitioner.id,
            name=name,
            mobile=mobile,
            **fields,
        )

    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient(email="sita@example.com")


@pytest.fixture
def registered_patient(patient_user):
    return PatientService.register_self(account=patient_user, mobile="9000000099")


@pytest.fixture
def make_item(practitioner):
    def _make(name="Paracetamol", quantity=100, *, owner=None, **fields):
        fields.setdefault("batch", "B-001")
        fields.setdefault("expiry_date", date.today() + timedelta(days=365))
        return InventoryItem.objects.create(owner=owner or practitioner, name=name, quantity=quantity, **fields)

    return _make


@pytest.fixture
def doctor_client(practitioner):
    return _client(practitioner)


@pytest.fixture
def other_doctor_client(other_practitioner):
    return _client(other_practitioner)


@pytest.fixture
def patient_client(patient_user):
    return _client(patient_user)


@pytest.fixture
def admin_client(admin_user):
    return _client(admin_user)


@pytest.fixture
def future_day():
    return date.today() + timedelta(days=7)
