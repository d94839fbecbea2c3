"""
indy-mqtt CLI - Command-line interface for IndySwitch devices.

Sends one command to a switch through the MQTT broker and prints the
acknowledgment.

Usage:
    indy-mqtt esp-vorona switch on
    indy-mqtt esp-vorona config timezone America/Los_Angeles
    indy-mqtt esp-vorona config offset 30
    indy-mqtt esp-vorona config suntimes suntimes.json
    indy-mqtt -v esp-vorona status all
    indy-mqtt esp-vorona restart
"""

from indy_mqtt import __version__
