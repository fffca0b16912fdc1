"""Database configuration and initialization."""
from sqlalchemy import create_engine, event, BigInteger, Integer, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigId = BigInteger().with_variant(Integer(), 'sqlite')
JsonDocument = JSON().with_variant(JSONB(), 'postgresql')

# Global session and engine
engine = None
db_session = None


def make_engine(database_uri, echo=False):
    """Build an engine with pool settings suited to the backend."""
    if database_uri.startswith('sqlite'):
        kwargs = {'connect_args': {'check_same_thread': False, 'timeout': 30}}
        if database_uri in ('sqlite://', 'sqlite:///:memory:'):
            # SQLite: in-memory databases must share a single connection
            kwargs['poolclass'] = StaticPool
            return create_engine(database_uri, echo=echo, **kwargs)

        sqlite_engine = create_engine(database_uri, echo=echo, **kwargs)

        @event.listens_for(sqlite_engine, 'connect')
        def _disable_pysqlite_begin(dbapi_conn, connection_record):
            dbapi_conn.isolation_level = None

        @event.listens_for(sqlite_engine, 'begin')
        def _begin_immediate(conn):
            # Writers queue on the busy timeout instead of failing lock upgrades
            conn.exec_driver_sql('BEGIN IMMEDIATE')

        return sqlite_engine

    return create_engine(
        database_uri,
        echo=echo,
        pool_pre_ping=True,  # Enable connection health checks
        pool_size=10,
        max_overflow=20
    )


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    engine = make_engine(
        app.config['SQLALCHEMY_DATABASE_URI'],
        echo=app.config.get('SQLALCHEMY_ECHO', False)
    )

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
    )

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_schema(bind=None):
    """Create all tables (used by `flask init-db` and the test-suite)."""
    import comanda.models  # noqa: F401  (register mappers)
    Base.metadata.create_all(bind=bind or engine)


def drop_schema(bind=None):
    """Drop all tables."""
    import comanda.models  # noqa: F401
    Base.metadata.drop_all(bind=bind or engine)


def get_session():
    """Get database session."""
    return db_session
