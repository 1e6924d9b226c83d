"""MindSpend - Services"""
