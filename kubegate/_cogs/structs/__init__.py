"""
Data structures passed between the layers: requests, responses,
bodies, resource references, credentials, routing tags.

All the structures are purely data-holding and computational.
No external calls or any i/o activities are done here.
"""
