"""
Rendering Module
===============

Social card markup and JPEG capture with browser automation.

Components:
- browser: Single shared headless browser process
- card_template: Card markup from a target URL and a snapshot
- render_engine: Browser-driven capture of a card
- templates: Jinja2 card templates
"""
