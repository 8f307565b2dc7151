"""Round mechanics: candle spawning, countdown, combo and auto-submission.

Nothing here touches sockets or HTTP; the realtime host in
`candle_dash.socketio_events` drives these objects with its own clock.
"""
