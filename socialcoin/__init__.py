"""
socialcoin — ядро биржи social-токенов на bonding curve.

Содержит ценообразование (bonding curve + комиссии), подбор funding units,
state machine леджера субъекта и оркестрацию сделок issue/buy/sell.
"""
