# Import all SQLAlchemy models so Alembic autogenerate can discover tables via Base.metadata.
# Alembic's env.py imports this package for side effects.


from .assessment_model import Assessment  # noqa: F401
from .chat_models import ChatMessage, Conversation  # noqa: F401
