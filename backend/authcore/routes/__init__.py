"""HTTP surfaces of the authorization core"""
