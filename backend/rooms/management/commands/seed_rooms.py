from decimal import Decimal

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from core.money import format_amount
from rooms.models import Room
from rooms.services.catalog import create_room


SAMPLE_ROOMS = [
    {
        "name": "Garden Standard",
        "room_type": Room.STANDARD,
        "description": "Queen bed overlooking the courtyard garden.",
        "price_per_night": Decimal("100.00"),
        "capacity": 2,
        "amenities": ["wifi", "tv"],
        "total_rooms": 12,
        "floor_number": 1,
        "size_sqft": 280,
    },
    {
        "name": "Harbor Deluxe",
        "room_type": Room.DELUXE,
        "description": "King bed with a harbor view and a work desk.",
        "price_per_night": Decimal("165.00"),
        "capacity": 3,
        "amenities": ["wifi", "tv", "minibar", "coffee maker"],
        "total_rooms": 8,
        "floor_number": 4,
        "size_sqft": 390,
    },
    {
        "name": "Skyline Suite",
        "room_type": Room.SUITE,
        "description": "Separate living room, two queen beds and a kitchenette.",
        "price_per_night": Decimal("289.50"),
        "capacity": 4,
        "amenities": ["wifi", "tv", "minibar", "kitchenette", "bathtub"],
        "total_rooms": 4,
        "floor_number": 9,
        "size_sqft": 720,
    },
    {
        "name": "Presidential Penthouse",
        "room_type": Room.PRESIDENTIAL,
        "description": "Top-floor penthouse with a private terrace.",
        "price_per_night": Decimal("950.00"),
        "capacity": 6,
        "amenities": ["wifi", "tv", "minibar", "kitchen", "terrace", "butler"],
        "total_rooms": 1,
        "floor_number": 12,
        "size_sqft": 1800,
    },
]


class Command(BaseCommand):
    help = "Populate the local development database with a sample room catalog."

    def add_arguments(self, parser):
        parser.add_argument(
            "--force",
            action="store_true",
            help="Seed even when DEBUG is False.",
        )

    def handle(self, *args, **options):
        if not settings.DEBUG and not options["force"]:
            raise CommandError("Refusing to seed data while DEBUG is False.")

        created = 0
        with transaction.atomic():
            self.stdout.write(self.style.MIGRATE_HEADING("Creating rooms"))
            for fields in SAMPLE_ROOMS:
                if Room.objects.filter(name=fields["name"]).exists():
                    self.stdout.write(f"  {fields['name']}: already present")
                    continue
                room = create_room(**fields)
                created += 1
                self.stdout.write(
                    f"  {room.name}: {room.get_room_type_display()}, "
                    f"sleeps {room.capacity}, {format_amount(room.price_per_night)}/night"
                )

        self.stdout.write(self.style.SUCCESS(f"Seed data ready ({created} rooms created)."))
