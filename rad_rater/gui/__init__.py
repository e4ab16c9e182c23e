"""
GUI Package for the Radiology Impression Rater

Contains the Gradio-based web interface for rating cases.
"""

from rad_rater.gui.app import create_interface, CaseRaterGUI, CustomTheme

__all__ = ['create_interface', 'CaseRaterGUI', 'CustomTheme']
