from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.utils import timezone

from marketing_ops.models import User
from marketing_ops.services import avatar_url
from marketing_ops.store import get_entity_store


class Command(BaseCommand):
    help = 'Seeds the entity store with the Marketing department and default admin, manager and executive users.'

    def add_arguments(self, parser):
        parser.add_argument('--password', default='12345678', help='Password given to every seeded user.')

    def handle(self, *args, **options):
        store = get_entity_store()

        department = store.first('department', name='Marketing')
        if department is None:
            department = store.create(
                'department',
                {'name': 'Marketing', 'hod_name': 'Marketing Head', 'created_at': timezone.now()},
            )
            self.stdout.write(self.style.SUCCESS('Created department: Marketing'))

        users_to_create = [
            {
                'email': 'admin@brandnxtwave.co.in',
                'role': User.Role.SUPER_ADMIN,
                'name': 'Admin User',
                'department_id': None,
            },
            {
                'email': 'manager@brandnxtwave.co.in',
                'role': User.Role.MANAGER,
                'name': 'Marketing Manager',
                'department_id': department['id'],
            },
            {
                'email': 'executive@brandnxtwave.co.in',
                'role': User.Role.EXECUTIVE,
                'name': 'Marketing Executive',
                'department_id': department['id'],
            },
        ]

        for user_data in users_to_create:
            email = user_data['email']
            if store.exists('user', email=email):
                self.stdout.write(self.style.WARNING(f'User {email} already exists.'))
                continue
            store.create(
                'user',
                {
                    **user_data,
                    'password': make_password(options['password']),
                    'avatar': avatar_url(user_data['name']),
                    'is_staff': user_data['role'] == User.Role.SUPER_ADMIN,
                    'is_superuser': user_data['role'] == User.Role.SUPER_ADMIN,
                    'created_at': timezone.now(),
                },
            )
            self.stdout.write(self.style.SUCCESS(f'Successfully created user: {email}'))
