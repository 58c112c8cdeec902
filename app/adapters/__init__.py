"""
Adapters for external platforms.

- ms365: Microsoft identity (MSAL) and Graph (drive file, mail)
- storage: remote stores holding the employees and reviews collections
"""
