"""Booking workflow test contracts"""
