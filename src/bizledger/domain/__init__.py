"""Domain layer for bizledger application.

Services are imported from their modules (``bizledger.domain.account`` and
so on); importing them here would make the database layer, which imports
``bizledger.domain.entities``, circular.
"""
