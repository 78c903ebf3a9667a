# callsense/store/__init__.py
# ============================
# Persistence — CallSense
#
# Responsibility:
#   - SQLAlchemy engine + documents table (database.py)
#   - Generic JSON document CRUD/query (document_store.py)
#   - Domain-level reads and writes with role rules (repository.py)
