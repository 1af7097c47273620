"""CLI script to seed the backend DB with a demo admin, members and toys.
Usage: python scripts/seed_demo.py [--password PASSWORD] [--toys N]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `toyshare` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from toyshare.database import engine, create_db_and_tables
from toyshare import services, repositories

DEMO_USERS = [
    # username, name, location, latitude, longitude, is_admin
    ('admin', 'ToyShare Admin', 'London', 51.5074, -0.1278, True),
    ('alice', 'Alice Green', 'London', 51.5155, -0.0922, False),
    ('bob', 'Bob Rivers', 'Oxford', 51.7520, -1.2577, False),
]

DEMO_TOYS = [
    ('Wooden train set', 'Classic wooden railway with 20 pieces', '3-5 years', 'Good', 'Vehicles', ['wooden', 'train']),
    ('Picture book bundle', 'Ten board books, lightly read', '0-2 years', 'Like New', 'Books', ['books', 'reading']),
    ('Building blocks', 'Large bucket of compatible bricks', '6-8 years', 'Good', 'Building', ['lego', 'creative']),
    ('Plush bear', 'Soft teddy bear, washed', '0-2 years', 'Fair', 'Plush', ['soft']),
    ('Puzzle 500 pieces', 'Landscape puzzle, all pieces present', '9-12 years', 'Like New', 'Puzzles', ['puzzle']),
]


def main(password: str = 'demo1234', toys: int = len(DEMO_TOYS)):
    """Create demo users and spread `toys` listings across the non-admin members.

    Existing usernames, and titles an owner already lists, are skipped so
    the script can be re-run safely.
    """
    create_db_and_tables()
    with Session(engine) as session:
        auth = services.AuthService(session)
        user_repo = repositories.UserRepository(session)
        members = []
        for username, name, location, lat, lon, admin in DEMO_USERS:
            user = user_repo.get_by_username(username)
            if user is None:
                user = auth.register(
                    username, password, f'{username}@example.com', name, location,
                    latitude=lat, longitude=lon, city_name=location,
                )
                print(f'Created user {username} (id={user.id})')
            else:
                print(f'User {username} already exists, skipping')
            if admin and not user.is_admin:
                user.is_admin = True
                user_repo.save(user)
            if not admin:
                members.append(user)
        if not members:
            print('No members to own toys')
            return
        toy_svc = services.ToyService(session)
        toy_repo = repositories.ToyRepository(session)
        listed = {m.id: {t.title for t in toy_repo.list_by_user(m.id)} for m in members}
        created = 0
        for i, (title, description, age_range, condition, category, tags) in enumerate(DEMO_TOYS[:toys]):
            owner = members[i % len(members)]
            if title in listed[owner.id]:
                print(f'Toy {title!r} already listed by {owner.username}, skipping')
                continue
            toy_svc.create(owner, {
                'title': title,
                'description': description,
                'age_range': age_range,
                'condition': condition,
                'category': category,
                'location': owner.location,
                'latitude': owner.latitude,
                'longitude': owner.longitude,
                'tags': tags,
            })
            created += 1
        print(f'Total created toys: {created}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--password', default='demo1234', help='Password for every demo account')
    parser.add_argument('--toys', type=int, default=len(DEMO_TOYS), help='Number of demo toys to create')
    args = parser.parse_args()
    main(password=args.password, toys=args.toys)
