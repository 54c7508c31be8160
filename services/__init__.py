"""
HOMELINK Services Package

Hardware and voice services used by the relay, one sub-package per concern:

Controller Link (services.link)
-------------------------------
- select_endpoint / find_controller_port: serial port discovery
- LinkManager: the single serial connection to the controller

Devices (services.devices)
--------------------------
- DeviceRegistry: in-memory device catalog and state
- CommandRelay: validation and wire-command forwarding

Voice Authentication (services.voice_auth)
------------------------------------------
- extract_features: transcript to VoiceSignature
- EnrollmentSession: phrase-by-phrase training state machine
- VoiceSignatureMatcher: weighted first-match authentication
"""
