# init_db.py (in backend folder)

from sqlalchemy import inspect

from chatline.infra.database import get_engine, reset_db


def init_db():
    """Drop and recreate all tables"""
    print("Dropping and recreating all tables...")
    reset_db()
    print("Database initialized successfully!")

    inspector = inspect(get_engine())
    tables = inspector.get_table_names()
    print(f"\nCreated tables: {tables}")

    for table in tables:
        columns = inspector.get_columns(table)
        print(f"\n{table}:")
        for col in columns:
            print(f"  - {col['name']}: {col['type']}")


if __name__ == "__main__":
    init_db()
