"""Core application primitives (settings, database, security, errors)."""

# bcrypt 4.x dropped __about__, which passlib still reads when it loads the
# bcrypt backend. Provide it before passlib is imported anywhere.
import bcrypt
if not hasattr(bcrypt, '__about__'):
    class _About:
        __version__ = bcrypt.__version__
    bcrypt.__about__ = _About()
