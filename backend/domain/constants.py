"""
Domain constants used across services/routers.
"""

# Secret store keys
BURNER_KEY_SECRET = "BURNER_PRIVATE_KEY"
MAIN_WALLET_SECRET = "MAIN_WALLET_ADDRESS"

# EVM address: 0x prefix + 20 bytes hex
ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"

# Optical payload parameter separators (EIP-681 style: ethereum:<addr>@<chain>?<params>)
OPTICAL_PARAM_SEPARATORS = ("@", "?")

# Step messages shown by the device app
STEP_ERROR_MESSAGE = "Payment failed"
STEP_DONE_MESSAGE = "Payment complete, burner wallet destroyed"
