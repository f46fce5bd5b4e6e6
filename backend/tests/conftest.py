import os, sys, pytest
# Ensure backend directory is on path so 'backoffice' and 'tests' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from backoffice import create_app, get_db, get_platform
from backoffice.models.user import Base
# Import all model modules to ensure tables are registered before create_all
import backoffice.models.catalog  # noqa: F401
import backoffice.models.order  # noqa: F401
import backoffice.models.audit  # noqa: F401


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'ORDERS_LOCAL_TZ': 'America/Lima', 'ORDERS_SSE_HEARTBEAT': 0.05})
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def platform(app_instance):
    """Shared data platform with an empty orders table and no leftover channels."""
    p = get_platform()
    session = get_db()
    session.rollback()
    p.orders().delete_all()
    yield p
    for channel in p.feed.active_channels():
        p.feed.remove_channel(channel)
    get_db().rollback()
