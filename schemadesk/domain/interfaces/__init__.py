"""Abstract seams between the request pipeline and its collaborators.

``Requester`` is what endpoint groups call, ``ConnectivitySource`` feeds the
online/offline monitor and ``UserInterface`` is what command handlers print to.
"""
