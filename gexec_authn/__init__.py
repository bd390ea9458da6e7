"""gexec identity resolution package.

To use the Flask app:
    from gexec_authn.flask_app import create_app

To resolve identities without Flask:
    from gexec_authn.core.provider import Provider
"""
# Note: We don't import flask_app by default to avoid Flask dependency
# for callers that only use gexec_authn.core
