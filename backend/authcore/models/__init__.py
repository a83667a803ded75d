"""Read models, decision results and API schemas for the authorization core"""
