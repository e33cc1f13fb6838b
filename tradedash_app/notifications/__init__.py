"""
Notification module.

Tagged-union events emitted by the trade lifecycle and the movement
detector, and the dispatcher that turns them into toasts and persisted
alerts.
"""
