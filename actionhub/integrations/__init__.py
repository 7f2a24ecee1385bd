"""Google API clients.

Services never build HTTP calls to Google themselves; they go through:

  workspace_gateway   Admin SDK Directory (groups and memberships)
  firebase_identity   Firebase ID token verification
"""
