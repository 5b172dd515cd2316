"""
Core modules for Design Desk.

This package contains the quota engine, command parsing and client
resolution. Nothing in here talks to the chat platform.
"""
