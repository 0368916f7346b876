"""
Core application logic.

The `SessionContext` wires one session's components together. The
`SessionManager` owns login and logout, the `PlaybackController` drives a
single track view and the `FavoriteCoordinator` keeps favorite flags in step
with the server.
"""
