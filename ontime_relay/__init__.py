"""
ontime-relay — Bridge between an ontime show-control server and control surfaces.

Modules:
  core/     — ontime WebSocket connection, event directory, host instance
  api/      — FastAPI REST + WebSocket bridge
  osc/      — TouchOSC UDP listener/sender
  config/   — Settings, env loading, YAML config
"""

__version__ = "1.0.0"
