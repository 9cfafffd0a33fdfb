"""auth/ -- Authentication and session core for SecretGate.

Components, leaf-first: store -> credentials (Credential Verifier) and
resolver (Identity Resolver) -> sessions (Session Serializer) -> broker
(Authentication Broker) -> guard (Access Guard).

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or web/. api/ and web/ import from auth/, not
the other way around.
"""
