"""Application package for the ToyShare community marketplace backend.

Members list toys they no longer need, browse nearby listings, request
and exchange toys, and earn sustainability badges along the way. The
FastAPI application lives in `main`; services, repositories and models
contain the concrete implementations and documentation.
"""
