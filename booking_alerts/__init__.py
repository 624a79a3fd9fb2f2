# Package initializer for the booking alert engine.

"""
The `booking_alerts` package schedules start/end alerts for bookings and
keeps live counts of pending, delivered and current alerts.

Modules:

- ``config``: application settings loaded from environment variables.
- ``models``: Pydantic data models for time spans, alerts and snapshots.
- ``codec``: encoding of a time span into an alert identifier and back.
- ``currency``: classification of delivered alerts as current or obsolete.
- ``backend``: the notification backend protocol and an in-process center.
- ``diagnostics``: reconciliation of backend state into count snapshots.
- ``extender``: chaining of end-of-booking alerts to start alerts.
- ``manager``: the ``NotificationManager`` scheduling authority.
- ``main``: the FastAPI demo service.

"""
