"""Infrastructure - settings, sqlite, key-value storage, identity, quota, credentials"""
