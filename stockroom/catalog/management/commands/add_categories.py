"""
Management command to add categories to the database
"""
from django.core.management.base import BaseCommand

from stockroom.catalog.models import Category
from stockroom.catalog.serializers import CategorySerializer

DEFAULT_CATEGORIES = [
    'Beverages',
    'Snacks',
    'Dairy',
    'Bakery',
    'Frozen',
    'Household',
    'Personal Care',
]


class Command(BaseCommand):
    help = "Adds categories to the database (a default grocery set when no names are given)"

    def add_arguments(self, parser):
        parser.add_argument('names', nargs='*', help='Category names to add')
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear all existing categories before adding new ones',
        )

    def handle(self, *args, **options):
        names = options['names'] or DEFAULT_CATEGORIES

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("ADDING CATEGORIES"))
        self.stdout.write(self.style.SUCCESS("=" * 80))

        if options['clear']:
            self.stdout.write(self.style.WARNING("Clearing all existing categories..."))
            Category.objects.all().delete()
            self.stdout.write(self.style.SUCCESS("All categories cleared."))

        created_count = 0
        skipped_count = 0

        for category_name in names:
            category_name = category_name.strip()
            if not category_name:
                continue

            serializer = CategorySerializer(data={'name': category_name})
            if serializer.is_valid():
                serializer.save()
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f"  Created: {category_name}"))
            else:
                skipped_count += 1
                reason = '; '.join(str(message) for messages in serializer.errors.values() for message in messages)
                self.stdout.write(self.style.WARNING(f"  Skipped ({reason}): {category_name}"))

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"Categories Created: {created_count}")
        self.stdout.write(f"Categories Skipped: {skipped_count}")
        self.stdout.write(f"Total Categories in Database: {Category.objects.count()}")
