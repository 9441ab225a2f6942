from django.core.management.base import BaseCommand

from clinic.models import User

TEST_SET = [
    ("admin@clinic.test", "Clinic Admin", User.ROLE_ADMIN),
    ("doctor@clinic.test", "Dr. Demo Doctor", User.ROLE_DOCTOR),
    ("reception@clinic.test", "Front Desk", User.ROLE_RECEPTIONIST),
]


class Command(BaseCommand):
    help = "Ensure demo staff users exist with the given password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="123456")

    def handle(self, *args, **opts):
        password = opts["password"]
        for email, name, role in TEST_SET:
            u = User.objects.filter(email=email).first()
            if u is None:
                User.objects.create_user(email=email, password=password, name=name, role=role)
                self.stdout.write(self.style.SUCCESS(f"created: {email} ({role})"))
                continue
            u.set_password(password)
            u.role = role
            u.is_active = True
            u.reset_login_attempts()
            u.save(update_fields=["password", "role", "is_active", "login_attempts", "locked_until"])
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
