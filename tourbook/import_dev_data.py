"""Load or wipe development data.

Usage:
    python -m tourbook.import_dev_data --import dev-data/data.json
    python -m tourbook.import_dev_data --delete

The JSON file holds ``users``, ``tours`` and ``reviews`` lists whose records use
the model column names. Records may carry explicit ids so tours can name their
guides and reviews can point at the tours and users they belong to. Tour start
dates are ISO 8601 strings.
"""
import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tourbook.database import SessionLocal, create_schema
from tourbook.models.booking import Booking
from tourbook.models.review import Review, calc_average_ratings
from tourbook.models.tour import Tour, TourStartDate, tour_guides
from tourbook.models.user import User

LOAD_ORDER = (('users', User), ('tours', Tour), ('reviews', Review))


def _tour_fields(db: Session, record: dict) -> dict:
    fields = dict(record)
    guides = []
    for guide_id in fields.pop('guides', []):
        guide = db.get(User, guide_id)
        if guide is None:
            raise ValueError(f'Unknown guide: {guide_id}')
        guides.append(guide)
    fields['guides'] = guides
    fields['start_dates'] = [datetime.fromisoformat(value) for value in fields.get('start_dates', [])]
    return fields


def load_data(db: Session, payload: dict) -> dict[str, int]:
    counts = {}
    try:
        for key, model in LOAD_ORDER:
            rows = payload.get(key, [])
            if model is Tour:
                rows = [_tour_fields(db, row) for row in rows]
            records = [model(**row) for row in rows]
            db.add_all(records)
            db.flush()
            counts[key] = len(records)

        for tour_id in db.scalars(select(Tour.id)).all():
            calc_average_ratings(db, tour_id)
        db.commit()
    except (SQLAlchemyError, TypeError, ValueError):
        db.rollback()
        raise
    return counts


def delete_data(db: Session) -> None:
    db.execute(delete(tour_guides))
    for model in (Booking, Review, TourStartDate, Tour, User):
        db.execute(delete(model))
    db.commit()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument('--import', dest='import_file', type=Path, metavar='FILE', help='load records from a JSON file')
    action.add_argument('--delete', action='store_true', help='delete all development data')
    args = parser.parse_args(argv)

    create_schema()
    db = SessionLocal()
    try:
        if args.delete:
            delete_data(db)
            print('Data successfully deleted!')
            return

        try:
            payload = json.loads(args.import_file.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as exc:
            print(f'Could not read {args.import_file}: {exc}', file=sys.stderr)
            sys.exit(1)

        counts = load_data(db, payload)
        print('Data successfully loaded!', ', '.join(f'{count} {key}' for key, count in counts.items()))
    finally:
        db.close()


if __name__ == '__main__':
    main()
