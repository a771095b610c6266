"""Read-only Microsoft Graph snippets for the signed-in user.

This package exposes the snippet catalog and registry, an asyncio based
invoker, and the configuration, authentication, Graph client and audit
helpers needed to run snippets against a real tenant.
"""
