"""Storage - domain models, local record index, settings, remote stores"""
