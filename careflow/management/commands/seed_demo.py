# careflow/management/commands/seed_demo.py
from decimal import Decimal

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.db import transaction
from rest_framework.authtoken.models import Token

from careflow.models import Department, Medication, PharmacyStock, ProviderProfile, Role, User

MEDICATIONS = [
    ("Amoxicillin 500mg", Decimal("5000")),
    ("Ibuprofen 200mg", Decimal("3000")),
    ("Omeprazole 20mg", Decimal("4500")),
    ("Cetirizine 10mg", Decimal("2000")),
]

# pharmacy username -> {medication name: units}; pharm2 lacks Omeprazole.
STOCK = {
    "pharm1": {"Amoxicillin 500mg": 40, "Ibuprofen 200mg": 100, "Omeprazole 20mg": 25, "Cetirizine 10mg": 60},
    "pharm2": {"Amoxicillin 500mg": 10, "Ibuprofen 200mg": 15, "Cetirizine 10mg": 5},
}

ACCOUNTS = [
    ("doctor1", Role.DOCTOR, "Dana", "Kim"),
    ("patient1", Role.PATIENT, "Pat", "Lee"),
    ("pharm1", Role.PHARMACY, "Central", "Pharmacy"),
    ("pharm2", Role.PHARMACY, "Corner", "Pharmacy"),
]


class Command(BaseCommand):
    help = "Create demo accounts, catalog and pharmacy stock (idempotent, password=123456)."

    @transaction.atomic
    def handle(self, *args, **opts):
        dept, _ = Department.objects.get_or_create(name="Internal Medicine",
                                                   defaults={"description": "General internal medicine"})
        users = {}
        for username, role, first, last in ACCOUNTS:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "first_name": first, "last_name": last,
                          "password": make_password("123456"), "is_active": True},
            )
            if not created and u.role != role:
                u.role = role
                u.save(update_fields=["role"])
            users[username] = u
            token, _ = Token.objects.get_or_create(user=u)
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role}) token={token.key}"))

        ProviderProfile.objects.update_or_create(
            user=users["doctor1"],
            defaults={"department": dept, "specialization": "Family medicine",
                      "offers_remote": True, "offers_in_person": True},
        )

        meds = {}
        for name, price in MEDICATIONS:
            meds[name], _ = Medication.objects.update_or_create(name=name, defaults={"unit_price": price})

        for pharmacy, levels in STOCK.items():
            for name, quantity in levels.items():
                PharmacyStock.objects.update_or_create(
                    pharmacy=users[pharmacy], medication=meds[name], defaults={"quantity": quantity},
                )

        self.stdout.write(self.style.SUCCESS(
            f"Seeded department {dept.id}, {len(meds)} medications, {len(STOCK)} pharmacies."
        ))
