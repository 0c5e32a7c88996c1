"""
HitchSafe services

Trip lifecycle, location tracking, emergency handling, contact alerts and
identity.
"""
