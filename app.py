#!/usr/bin/env python3
"""
HuggingFace Spaces entry point for the impression rater.

Composes conf/config.yaml (Hydra overrides may be passed as arguments, e.g.
``python app.py storage.remote.backend=sheets``) and launches the Gradio
interface.
"""

import sys

from rad_rater.config import load_settings
from rad_rater.gui import CustomTheme, create_interface

settings = load_settings(sys.argv[1:])
demo = create_interface(settings)

# For HuggingFace Spaces, Gradio will automatically detect and launch this
if __name__ == "__main__":
    demo.launch(
        server_name=settings.app.server_name,
        server_port=settings.app.server_port,
        theme=CustomTheme(),
    )
