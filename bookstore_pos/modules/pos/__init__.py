"""
Módulo POS (Point of Sale)

ENTIDADES PRINCIPALES:
- CashSession: Caja con apertura/cierre, contadores por forma de pago y conferencia
- CashMovement: Depósitos y retiros manuales
- Sale / SaleLine: Ventas POS

FUNCIONALIDADES:
- Una única caja abierta a la vez
- Ventas que descuentan stock y suman al contador de la forma de pago
- Estorno mientras la caja de la venta siga abierta
- Conferencia (quebra) recalculable en cualquier momento
"""
