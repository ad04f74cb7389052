"""
Services Package

External-facing services: storage backends and transaction
import/export.
"""
