"""Spreadsheet row shape and Google Sheets values client"""
