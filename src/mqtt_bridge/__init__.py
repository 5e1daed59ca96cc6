"""Run pre-configured shell commands on incoming MQTT messages.

Actions are advertised to Home Assistant as buttons via MQTT discovery.
"""

__version__ = "0.3.0"
