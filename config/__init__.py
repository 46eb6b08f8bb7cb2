"""Configuration loading for the Smart Wi-Fi Agent."""
