"""
Data structures describing the API, the connection, and the operations.

All the functions here are purely data-manipulative and computational.
No external calls or any i/o activities are done here.
"""
