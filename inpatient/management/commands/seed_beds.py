"""
Management command to populate the database with a bed inventory.
"""
import random

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.db import transaction

from inpatient.models import BedSpace, Department, PatientProfile, User


DEPARTMENTS = [
    ('Internal Medicine', 'General adult inpatient care'),
    ('Surgery', 'Pre- and post-operative care'),
    ('Pediatrics', 'Inpatient care for children'),
    ('Obstetrics', 'Maternity and delivery'),
    ('Emergency', 'Acute and trauma admissions'),
]

# department name -> (ward, floor, bed type)
WARDS = {
    'Internal Medicine': ('Ward A', 2, 'general'),
    'Surgery': ('Ward B', 3, 'surgical'),
    'Pediatrics': ('Ward C', 4, 'pediatric'),
    'Obstetrics': ('Maternity', 5, 'maternity'),
    'Emergency': ('ER', 1, 'emergency'),
}

EQUIPMENT = ['oxygen', 'monitor', 'iv_pole', 'suction', 'call_button']


class Command(BaseCommand):
    help = 'Populate database with departments, patients and beds'

    def add_arguments(self, parser):
        parser.add_argument('--rooms', type=int, default=4, help='Rooms per department')
        parser.add_argument('--beds-per-room', type=int, default=2)
        parser.add_argument('--patients', type=int, default=8)

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('Creating seed data...')
        departments = self.create_departments()
        self.create_doctors(departments)
        self.create_patients(options['patients'])
        created = self.create_beds(departments, options['rooms'], options['beds_per_room'])
        self.stdout.write(self.style.SUCCESS(f'Seed data ready ({created} new beds).'))

    def create_departments(self):
        departments = []
        for name, description in DEPARTMENTS:
            dept, _ = Department.objects.get_or_create(name=name, defaults={'description': description})
            departments.append(dept)
            self.stdout.write(f'Department: {dept.name}')
        return departments

    def create_doctors(self, departments):
        for i, dept in enumerate(departments, start=1):
            user, _ = User.objects.get_or_create(
                username=f'doctor{i}',
                defaults={
                    'password': make_password('123456'),
                    'role': User.ROLE_DOCTOR,
                    'department': dept,
                    'first_name': f'Doctor{i}',
                    'last_name': dept.name.split()[0],
                },
            )
            self.stdout.write(f'Doctor: {user.username} -> {dept.name}')

    def create_patients(self, count):
        for i in range(1, count + 1):
            user, _ = User.objects.get_or_create(
                username=f'patient{i}',
                defaults={
                    'password': make_password('123456'),
                    'role': User.ROLE_PATIENT,
                    'first_name': f'Patient{i}',
                },
            )
            PatientProfile.objects.get_or_create(
                user=user,
                defaults={
                    'sex': 'male' if i % 2 else 'female',
                    'phone': f'555{random.randint(1000000, 9999999)}',
                },
            )
            self.stdout.write(f'Patient: {user.username}')

    def create_beds(self, departments, rooms, beds_per_room):
        created = 0
        for dept in departments:
            ward, floor, bed_type = WARDS[dept.name]
            for room in range(1, rooms + 1):
                room_number = f'{floor}{room:02d}'
                for bed in range(1, beds_per_room + 1):
                    _, was_created = BedSpace.objects.get_or_create(
                        room_number=room_number,
                        bed_number=chr(ord('A') + bed - 1),
                        is_active=True,
                        defaults={
                            'department': dept,
                            'ward': ward,
                            'floor': floor,
                            'type': bed_type,
                            'equipment': random.sample(EQUIPMENT, k=2),
                        },
                    )
                    created += int(was_created)
        return created
