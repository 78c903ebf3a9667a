# callsense/api/routes/__init__.py
# =================================
# Routers: auth, reports, knowledge, team (incl. dashboard), assist
