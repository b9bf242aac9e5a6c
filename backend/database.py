import psycopg2
from psycopg2.extras import RealDictCursor, Json
from contextlib import contextmanager
from config import get_db_config
from models import Location, Meetup


@contextmanager
def get_db():
    """Get a database connection with automatic commit/rollback."""
    config = get_db_config()
    conn = psycopg2.connect(
        host=config["host"],
        port=config["port"],
        database=config["database"],
        user=config["user"],
        password=config["password"],
        cursor_factory=RealDictCursor
    )
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db():
    """Initialize database schema."""
    with get_db() as conn:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS meetups (
                id TEXT PRIMARY KEY,
                host_id TEXT NOT NULL,
                host_name TEXT,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                court_type TEXT NOT NULL,
                latitude DOUBLE PRECISION NOT NULL,
                longitude DOUBLE PRECISION NOT NULL,
                address TEXT NOT NULL,
                starts_at TIMESTAMPTZ NOT NULL,
                ends_at TIMESTAMPTZ NOT NULL,
                max_players INTEGER NOT NULL CHECK(max_players > 0),
                current_players INTEGER NOT NULL,
                approved_players JSONB NOT NULL DEFAULT '[]',
                waitlist JSONB NOT NULL DEFAULT '[]',
                status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active', 'cancelled')),
                cancellation_reason TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
                version INTEGER NOT NULL DEFAULT 0,
                CHECK(current_players <= max_players)
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS meetups_host_idx ON meetups (host_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS meetups_status_created_idx ON meetups (status, created_at DESC)")

        conn.commit()


def meetup_from_row(row) -> Meetup:
    """Build a Meetup from a meetups table row."""
    data = dict(row)
    data["location"] = Location(latitude=data.pop("latitude"), longitude=data.pop("longitude"))
    return Meetup(**data)


def meetup_to_params(meetup: Meetup) -> dict:
    """Flatten a Meetup into named query parameters for the meetups table."""
    data = meetup.model_dump(exclude={"location"})
    data["latitude"] = meetup.location.latitude
    data["longitude"] = meetup.location.longitude
    data["approved_players"] = Json(meetup.approved_players)
    data["waitlist"] = Json(meetup.waitlist)
    return data


if __name__ == "__main__":
    init_db()
    print("Database initialized successfully")
