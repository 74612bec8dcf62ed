from offlinegate.server import main

main()
