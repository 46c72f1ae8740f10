"""Ticket history service: REST and RPC surfaces over a ticket store with search-index propagation."""
