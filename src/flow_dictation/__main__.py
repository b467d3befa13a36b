from flow_dictation.main import main

main()
